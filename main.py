#!/usr/bin/env python3
"""Entry point for the QMC Integrator."""

from qmc_integrator.cli import main

if __name__ == "__main__":
    main()
