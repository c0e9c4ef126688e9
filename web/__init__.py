"""Flask storefront, redirect and admin endpoints for the deals catalog."""
