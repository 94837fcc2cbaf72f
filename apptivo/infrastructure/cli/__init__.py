"""Console presentation for the apptivo command line."""
