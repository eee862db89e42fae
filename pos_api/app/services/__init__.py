"""Order lifecycle, reporting and audit delivery services."""
