"""Interest-first payment allocation for shared expenses."""
