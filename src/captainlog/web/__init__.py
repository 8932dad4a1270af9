"""HTTP front-end: JSON API and static pages."""
