"""Application services: one module per aggregate or collaborator."""
