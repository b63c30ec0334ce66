"""School data gateway and spreadsheet helpers."""
