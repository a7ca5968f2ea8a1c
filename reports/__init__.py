"""Report model (:mod:`reports.matrix`) and its renderers (:mod:`reports.renderers`)."""
