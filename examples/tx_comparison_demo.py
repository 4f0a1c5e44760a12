#!/usr/bin/env python3
"""
OFDM vs UFMC transmit comparison.

Builds one CP-OFDM and one UFMC frame from the same random QPSK payload with
the default LTE-like numerology, prints the frame summary and out-of-band
figures, and saves the time-domain and PSD comparison plots.

Run with: python examples/tx_comparison_demo.py [output_dir]
"""

import logging
import sys
from pathlib import Path

from ofdm_ufmc_generator import MulticarrierTransmitter, SignalVisualizer

try:
    import matplotlib

    matplotlib.use("Agg")
    MATPLOTLIB_AVAILABLE = True
except ImportError:
    MATPLOTLIB_AVAILABLE = False


def main(output_dir: str = "tx_comparison_output"):
    """Generate, summarize and plot both frames."""
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("OFDM vs UFMC Transmit Comparison")
    print("=" * 40)

    with MulticarrierTransmitter() as transmitter:
        ofdm_frame, ufmc_frame = transmitter.generate_frames()

        print(transmitter.format_summary(ufmc_frame))
        print()

        analysis = transmitter.analyze_frames([ofdm_frame, ufmc_frame])
        for scheme, result in analysis.items():
            print(
                f"{scheme}: {result['out_of_band_ratio'] * 100:.3f}% out-of-band power, "
                f"PAPR = {result['papr_db']:.2f} dB"
            )

        error_handler = transmitter.gpu_backend.error_handler
        if error_handler.error_history:
            print()
            print(error_handler.generate_diagnostic_report())

        if not MATPLOTLIB_AVAILABLE:
            print("\nMatplotlib not available, skipping plots")
            return

        visualizer = SignalVisualizer(transmitter.spectrum_analyzer)
        saved = visualizer.create_comparison_report([ofdm_frame, ufmc_frame], Path(output_dir))

        print("\nSaved figures:")
        for name, path in saved.items():
            print(f"  {name}: {path}")


if __name__ == "__main__":
    main(*sys.argv[1:2])
