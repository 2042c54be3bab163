"""Place search (geocoding) collaborator."""
