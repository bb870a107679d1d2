"""Core build pipeline: page paths, transforms, build configuration and bundler."""
