"""Flask front end for the payment allocation engine."""
