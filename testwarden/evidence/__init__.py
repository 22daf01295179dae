"""AC evidence reporting: ingest test results, bind screenshots, render the report."""
