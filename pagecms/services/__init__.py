"""Application services: migration and page resolution."""
