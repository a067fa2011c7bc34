"""Matplotlib window wiring the input controls to a map session."""

from __future__ import annotations

import logging
from typing import Any

from .config import AppConfig
from .models import Resolution
from .render import MatplotlibSurface
from .search import SearchStatus
from .session import MapSession


_LOGGER = logging.getLogger("projview.viewer")

_PANEL_WIDTH_PX = 260.0
_MAP_DPI = 100.0


def _require_pyplot() -> Any:
    try:
        import matplotlib.pyplot as plt
    except ImportError as exc:  # pragma: no cover
        raise RuntimeError("matplotlib is required for the interactive viewer") from exc
    return plt


class MapViewer:
    """Control panel beside the map: projection list, toggles, sliders, search."""

    def __init__(self, cfg: AppConfig) -> None:
        plt = _require_pyplot()
        view = cfg.view
        width = view.viewport.width + _PANEL_WIDTH_PX
        self.fig = plt.figure(
            figsize=(width / _MAP_DPI, view.viewport.height / _MAP_DPI),
            dpi=_MAP_DPI * view.device_pixel_ratio,
        )
        self.fig.patch.set_facecolor(cfg.style.canvas)
        map_fraction = view.viewport.width / width
        self.map_ax = self.fig.add_axes((0.0, 0.0, map_fraction, 1.0))

        self.session = MapSession.from_config(
            cfg, MatplotlibSurface(self.map_ax, background=cfg.style.canvas)
        )
        self._build_controls(map_fraction)
        self.session.on_loading = self._on_loading
        self.fig.canvas.mpl_connect("resize_event", self._on_resize)
        self.fig.canvas.mpl_connect("button_press_event", self._on_click)

    def _build_controls(self, left: float) -> None:
        from matplotlib.widgets import Button, CheckButtons, RadioButtons, Slider, TextBox

        fig = self.fig
        x = left + 0.01
        w = 0.98 - x
        state = self.session.state
        ids = list(self.session.factory.catalog.ids)

        self.title = fig.text(x, 0.97, "", color="white", fontsize=9, va="top")
        self.status = fig.text(x, 0.015, "", color="#f72585", fontsize=8)

        self.projection_radio = RadioButtons(
            fig.add_axes((x, 0.52, w, 0.42)),
            ids,
            active=ids.index(state.projection_id) if state.projection_id in ids else 0,
        )
        self.projection_radio.on_clicked(self._on_projection)

        self.toggles = CheckButtons(
            fig.add_axes((x, 0.44, w, 0.07)),
            ["Distortion", "Grid"],
            [state.show_distortion, state.show_grid],
        )
        self.toggles.on_clicked(self._on_toggle)

        self.lam_slider = Slider(fig.add_axes((x + 0.03, 0.40, w - 0.06, 0.025)), "λ", -180, 180, valinit=state.rotation.lam)
        self.phi_slider = Slider(fig.add_axes((x + 0.03, 0.36, w - 0.06, 0.025)), "φ", -90, 90, valinit=-state.rotation.phi)
        self.lam_slider.on_changed(self._on_rotation)
        self.phi_slider.on_changed(self._on_rotation)

        self.coarse_button = Button(fig.add_axes((x, 0.30, w / 2 - 0.005, 0.04)), "110m")
        self.fine_button = Button(fig.add_axes((x + w / 2 + 0.005, 0.30, w / 2 - 0.005, 0.04)), "50m")
        self.coarse_button.on_clicked(lambda _event: self._on_resolution(Resolution.COARSE))
        self.fine_button.on_clicked(lambda _event: self._on_resolution(Resolution.FINE))

        self.search_box = TextBox(fig.add_axes((x, 0.24, w, 0.04)), "", initial="")
        self.search_box.on_text_change(self._on_search)
        self.results_ax = fig.add_axes((x, 0.08, w, 0.15))
        self.results_ax.set_axis_off()

        self.reset_button = Button(fig.add_axes((x, 0.035, w, 0.035)), "Reset")
        self.reset_button.on_clicked(self._on_reset)

    def show(self) -> None:
        plt = _require_pyplot()
        # Open the window first so the initial load shows its indicator.
        plt.show(block=False)
        self._after(self.session.start())
        plt.show()

    def _on_loading(self, session: MapSession) -> None:
        # Paint synchronously: the fetch blocks the event loop.
        self.status.set_text(session.message or "")
        self.fig.canvas.draw()
        self.fig.canvas.flush_events()

    def _after(self, _rendered: bool) -> None:
        self._refresh_panel()
        self.fig.canvas.draw_idle()

    def _refresh_panel(self) -> None:
        entry = self.session.describe()
        self.title.set_text(f"{entry.label}  ({entry.group})" if entry is not None else "")
        self.status.set_text(self.session.message or "")
        self._draw_results()

    def _draw_results(self) -> None:
        ax = self.results_ax
        ax.cla()
        ax.set_axis_off()
        result = self.session.search_result
        if result.status is SearchStatus.NO_MATCHES:
            ax.text(0.0, 1.0, "No matching regions", color="#888888", fontsize=8, va="top")
            return
        for row, (_feature, label) in enumerate(result.items):
            ax.text(0.0, 1.0 - row * 0.1, label, color="white", fontsize=8, va="top")

    def _on_projection(self, label: str | None) -> None:
        if label is not None:
            self._after(self.session.select_projection(label))

    def _on_toggle(self, label: str | None) -> None:
        if label == "Distortion":
            self._after(self.session.toggle_distortion())
        elif label == "Grid":
            self._after(self.session.toggle_grid())

    def _on_rotation(self, _value: float) -> None:
        self._after(self.session.set_rotation(float(self.lam_slider.val), -float(self.phi_slider.val)))

    def _on_resolution(self, resolution: Resolution) -> None:
        self._after(self.session.set_resolution(resolution))

    def _on_search(self, text: str) -> None:
        self.session.search(text)
        self._after(False)

    def _on_reset(self, _event: Any) -> None:
        self.search_box.eventson = False
        self.search_box.set_val("")
        self.search_box.eventson = True
        self._after(self.session.reset())

    def _on_click(self, event: Any) -> None:
        if event.inaxes is not self.results_ax or event.ydata is None:
            return
        row = int((1.0 - float(event.ydata)) / 0.1)
        if 0 <= row < len(self.session.search_result):
            self._after(self.session.focus_result(row))

    def _on_resize(self, _event: Any) -> None:
        bbox = self.map_ax.get_window_extent()
        scale = self.fig.dpi / _MAP_DPI
        width, height = bbox.width / scale, bbox.height / scale
        if width > 0 and height > 0:
            _LOGGER.debug("Map area resized to %.0fx%.0f", width, height)
            self._after(self.session.resize(width, height))


def launch(cfg: AppConfig) -> None:
    MapViewer(cfg).show()
