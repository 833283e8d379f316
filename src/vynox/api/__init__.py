"""HTTP surface: application factory, dependency providers, errors."""
