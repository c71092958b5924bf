"""Service layer: business logic and thin vendor clients used by the routes."""
