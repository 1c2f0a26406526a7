"""Butcher tableaux and dense-output matrices of the embedded Runge-Kutta pairs."""
