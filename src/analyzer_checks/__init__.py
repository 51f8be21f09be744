"""Report static-analysis diagnostics as GitHub check runs."""
