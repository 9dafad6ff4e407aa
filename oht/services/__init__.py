"""Services that drive the bundle and unbundle workflows."""
