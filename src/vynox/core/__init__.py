"""Domain helpers shared by services and repositories."""
