"""Recipe Generator API: AI recipe generation, meal planning and nutrition tracking."""
