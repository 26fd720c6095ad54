"""Campaign site and lesson-plan generator."""
