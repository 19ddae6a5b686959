"""Invoice submission client with QuickBooks Online sync reporting."""
