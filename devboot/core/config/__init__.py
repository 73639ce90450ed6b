"""Configuration — devboot.yml settings, the embedded compatibility matrix and package map."""
