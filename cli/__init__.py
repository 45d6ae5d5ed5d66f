"""Command line entry points invoked by the external scheduler."""
