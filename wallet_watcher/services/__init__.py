"""Service layer: explorer adapters and wallet monitoring."""
