"""Record types shared across the package."""
