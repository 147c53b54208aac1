"""fitai-pipeline: catalog-grounded workout and meal plan generation jobs."""

__version__ = "0.1.0"
