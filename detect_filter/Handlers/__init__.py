"""Host-side adapters implementing the core protocols."""
