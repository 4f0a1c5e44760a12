"""
Frame export and visualization utilities for OFDM and UFMC frames.

This module saves generated frames together with their metadata, and draws
the time-domain amplitude and PSD comparison figures.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import numpy as np

try:
    import matplotlib.pyplot as plt
    from matplotlib.figure import Figure

    MATPLOTLIB_AVAILABLE = True
except ImportError:
    MATPLOTLIB_AVAILABLE = False

from .filter_design import frequency_response
from .models import TransmitFrame, UFMCFrameMetadata, describe_frame
from .spectrum import SpectrumAnalyzer, psd_to_db


class FrameExporter:
    """Handles exporting transmit frames to file."""

    def __init__(self, output_dir: Optional[Union[str, Path]] = None):
        """Initialize the frame exporter.

        Args:
            output_dir: Directory for exported files. If None, uses current directory.
        """
        self.output_dir = Path(output_dir) if output_dir else Path.cwd()
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_frame(
        self,
        frame: TransmitFrame,
        filename: str,
        format: str = "numpy",
        include_metadata: bool = True,
    ) -> Path:
        """Export a frame to file.

        Args:
            frame: TransmitFrame to export
            filename: Base filename (without extension)
            format: Export format ("numpy" or "json")
            include_metadata: Whether to include metadata in export

        Returns:
            Path to exported file

        Raises:
            ValueError: If format is not supported
        """
        supported_formats = ["numpy", "json"]
        if format not in supported_formats:
            raise ValueError(f"Unsupported format: {format}. Supported: {supported_formats}")

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        base_filename = f"{filename}_{timestamp}"

        if format == "numpy":
            return self._export_numpy(frame, base_filename, include_metadata)
        return self._export_json(frame, base_filename, include_metadata)

    def _unique_path(self, filename: str, suffix: str) -> Path:
        """Path in the output directory that no earlier export has taken."""
        filepath = self.output_dir / f"{filename}{suffix}"
        counter = 1
        while filepath.exists():
            filepath = self.output_dir / f"{filename}_{counter}{suffix}"
            counter += 1
        return filepath

    def _export_numpy(self, frame: TransmitFrame, filename: str, include_metadata: bool) -> Path:
        """Export frame as NumPy arrays."""
        filepath = self._unique_path(filename, ".npz")

        export_data = {
            "waveform": frame.waveform,
            "preamble": frame.metadata.preamble,
            "used_bins": frame.metadata.used_bins,
        }

        if include_metadata:
            export_data["generation_timestamp"] = frame.generation_timestamp.isoformat()
            export_data["metadata"] = json.dumps(describe_frame(frame))
            if isinstance(frame.metadata, UFMCFrameMetadata):
                export_data["subband_bins"] = frame.metadata.subband_bins
                export_data["center_bins"] = frame.metadata.center_bins
                export_data["prototype_filter"] = frame.metadata.prototype_filter

        np.savez_compressed(filepath, **export_data)
        return filepath

    def _export_json(self, frame: TransmitFrame, filename: str, include_metadata: bool) -> Path:
        """Export frame as JSON with split real and imaginary parts."""
        filepath = self._unique_path(filename, ".json")

        export_data = {
            "scheme": frame.scheme,
            "waveform_real": np.real(frame.waveform).tolist(),
            "waveform_imag": np.imag(frame.waveform).tolist(),
        }

        if include_metadata:
            export_data["generation_timestamp"] = frame.generation_timestamp.isoformat()
            export_data["metadata"] = describe_frame(frame)

        with open(filepath, "w") as f:
            json.dump(export_data, f, indent=2)

        return filepath


class SignalVisualizer:
    """Provides visualization tools for transmit frame comparison."""

    def __init__(self, spectrum_analyzer: Optional[SpectrumAnalyzer] = None):
        """Initialize the signal visualizer.

        Args:
            spectrum_analyzer: PSD estimator (default Welch parameters if None)
        """
        if not MATPLOTLIB_AVAILABLE:
            raise ImportError(
                "Matplotlib is required for visualization. Install with: pip install matplotlib"
            )
        self.spectrum_analyzer = spectrum_analyzer or SpectrumAnalyzer()

    def plot_time_domain(
        self,
        frames: Union[TransmitFrame, Sequence[TransmitFrame]],
        title: str = "Time-domain amplitude",
        save_path: Optional[Union[str, Path]] = None,
    ) -> Figure:
        """Plot the magnitude of each frame over time in milliseconds.

        Args:
            frames: Frame(s) to plot, one subplot each
            title: Figure title
            save_path: Optional path to save the plot

        Returns:
            Matplotlib Figure object
        """
        if isinstance(frames, TransmitFrame):
            frames = [frames]

        fig, axes = plt.subplots(len(frames), 1, figsize=(12, 3 * len(frames)))
        if len(frames) == 1:
            axes = [axes]

        for ax, frame in zip(axes, frames):
            time_ms = 1e3 * np.arange(frame.frame_length) / frame.metadata.sampling_rate
            ax.plot(time_ms, np.abs(frame.waveform), linewidth=0.8)
            ax.set_xlabel("Time [ms]")
            ax.set_ylabel(f"|x_{frame.scheme}(n)|")
            ax.set_title(self._time_domain_title(frame))
            ax.grid(True, alpha=0.3)

        fig.suptitle(title)
        plt.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=300, bbox_inches="tight")

        return fig

    @staticmethod
    def _time_domain_title(frame: TransmitFrame) -> str:
        if isinstance(frame.metadata, UFMCFrameMetadata):
            return f"{frame.scheme} (preamble + filtered subbands)"
        return f"{frame.scheme} (preamble + CP + data)"

    def plot_psd_comparison(
        self,
        frames: Sequence[TransmitFrame],
        labels: Optional[List[str]] = None,
        title: str = "Power Spectral Density (PSD)",
        save_path: Optional[Union[str, Path]] = None,
    ) -> Figure:
        """Overlay the Welch PSD of several frames in dB/Hz over MHz.

        Args:
            frames: Frames to compare
            labels: Legend entries (frame schemes if None)
            title: Plot title
            save_path: Optional path to save the plot

        Returns:
            Matplotlib Figure object
        """
        labels = labels or [frame.scheme for frame in frames]
        if len(labels) != len(frames):
            raise ValueError("labels must have one entry per frame")

        fig, ax = plt.subplots(figsize=(12, 6))

        for frame, label in zip(frames, labels):
            spectrum = self.spectrum_analyzer.estimate(frame.waveform, frame.metadata.sampling_rate)
            ax.plot(
                spectrum["frequency"] / 1e6, psd_to_db(spectrum["psd"]), linewidth=1.0, label=label
            )

        ax.set_xlabel("Frequency [MHz]")
        ax.set_ylabel("PSD [dB/Hz]")
        ax.set_title(title)
        ax.legend(loc="best")
        ax.grid(True, alpha=0.3)
        plt.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=300, bbox_inches="tight")

        return fig

    def plot_subband_filters(
        self,
        frame: TransmitFrame,
        title: str = "UFMC subband filters",
        save_path: Optional[Union[str, Path]] = None,
    ) -> Figure:
        """Plot the prototype response and the subband centres of a UFMC frame.

        Args:
            frame: UFMC frame
            title: Plot title
            save_path: Optional path to save the plot

        Returns:
            Matplotlib Figure object

        Raises:
            ValueError: If the frame is not a UFMC frame
        """
        meta = frame.metadata
        if not isinstance(meta, UFMCFrameMetadata):
            raise ValueError("Subband filter plot requires a UFMC frame")

        response = frequency_response(meta.prototype_filter)
        spacing_mhz = meta.sampling_rate / meta.fft_size / 1e6

        fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8))

        ax1.plot(response["frequency"] * meta.fft_size, response["magnitude_db"])
        ax1.axvline(-meta.tones_per_subband / 2, color="r", linestyle="--", alpha=0.5)
        ax1.axvline(meta.tones_per_subband / 2, color="r", linestyle="--", alpha=0.5)
        ax1.set_xlabel("Frequency [bins]")
        ax1.set_ylabel("Magnitude [dB]")
        ax1.set_title(
            f"Prototype (L = {meta.filter_length}, A = {meta.stopband_attenuation_db:g} dB)"
        )
        ax1.set_ylim(-meta.stopband_attenuation_db - 40, 5)
        ax1.grid(True, alpha=0.3)

        for index, bins in enumerate(meta.subband_bins):
            ax2.bar(
                bins * spacing_mhz,
                np.ones(bins.size),
                width=spacing_mhz,
                alpha=0.6,
                label=f"Subband {index}" if meta.num_subbands <= 12 else None,
            )
        ax2.plot(meta.center_bins * spacing_mhz, np.ones(meta.num_subbands), "kv")
        ax2.set_xlabel("Frequency [MHz]")
        ax2.set_ylabel("Occupied")
        ax2.set_title(f"{meta.num_subbands} subbands x {meta.tones_per_subband} tones")
        ax2.grid(True, alpha=0.3)
        if meta.num_subbands <= 12:
            ax2.legend(loc="upper right", fontsize="small", ncol=2)

        fig.suptitle(title)
        plt.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=300, bbox_inches="tight")

        return fig

    def create_comparison_report(
        self, frames: Sequence[TransmitFrame], output_dir: Union[str, Path]
    ) -> Dict[str, Path]:
        """Save every comparison figure into a directory.

        Args:
            frames: Frames to compare
            output_dir: Destination directory

        Returns:
            Mapping of plot name to saved file
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        saved = {}

        fig = self.plot_time_domain(frames, save_path=output_dir / "time_domain.png")
        saved["time_domain"] = output_dir / "time_domain.png"
        plt.close(fig)

        fig = self.plot_psd_comparison(frames, save_path=output_dir / "psd_comparison.png")
        saved["psd_comparison"] = output_dir / "psd_comparison.png"
        plt.close(fig)

        for frame in frames:
            if isinstance(frame.metadata, UFMCFrameMetadata):
                path = output_dir / "subband_filters.png"
                fig = self.plot_subband_filters(frame, save_path=path)
                saved["subband_filters"] = path
                plt.close(fig)
                break

        return saved
