"""TransplantFlow: donor/recipient evaluation workflow engine."""
