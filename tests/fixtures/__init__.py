"""Graph and fact-table builders shared by the unit and acceptance tests."""
