"""Key material resolution, certificate profiles and CA configuration."""
