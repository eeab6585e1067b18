"""Business logic services: access checks, deadlines, alerts, documents, billing and the rest."""
