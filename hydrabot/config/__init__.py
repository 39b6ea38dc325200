"""Process settings, config file schema, on-disk stores and logging."""
