"""Resolution services over fetched configuration documents."""
