"""Main timer window: a progress bar, the remaining seconds and the controls."""

import math

from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtWidgets import (
    QCheckBox, QFormLayout, QLabel, QProgressBar, QSpinBox, QVBoxLayout, QWidget,
)

from ..config import MAX_LOOP_LENGTH_S, MIN_LOOP_LENGTH_S, TimerConfig
from ..engine.events import TimerEvent

_PROGRESS_STEPS = 1000


class TimerWindow(QWidget):
    """Renders timer snapshots; every value shown comes from the latest event."""

    config_changed = pyqtSignal(object)  # TimerConfig

    def __init__(self, config: TimerConfig, parent=None) -> None:
        super().__init__(parent)
        self._config = config
        self.setWindowTitle("LoopTick")

        layout = QVBoxLayout(self)
        layout.setContentsMargins(20, 16, 20, 16)
        layout.setSpacing(12)

        form = QFormLayout()
        self._loop_spin = QSpinBox()
        self._loop_spin.setObjectName("loopLengthSpin")
        self._loop_spin.setRange(MIN_LOOP_LENGTH_S, MAX_LOOP_LENGTH_S)
        self._loop_spin.setSuffix(" s")
        self._loop_spin.setValue(int(config.loop_length_s))
        form.addRow("Loop length", self._loop_spin)

        self._stride_spin = QSpinBox()
        self._stride_spin.setObjectName("strideSpin")
        self._stride_spin.setRange(1, MAX_LOOP_LENGTH_S)
        self._stride_spin.setSuffix(" s")
        self._stride_spin.setValue(int(config.stride_s))
        form.addRow("Tick every", self._stride_spin)

        self._mute_box = QCheckBox("Mute")
        self._mute_box.setObjectName("muteCheck")
        self._mute_box.setChecked(config.muted)
        self._speech_box = QCheckBox("Speak numbers")
        self._speech_box.setObjectName("speechCheck")
        self._speech_box.setChecked(config.use_speech)
        form.addRow(self._mute_box, self._speech_box)
        layout.addLayout(form)

        self._progress_bar = QProgressBar()
        self._progress_bar.setObjectName("cycleProgressBar")
        self._progress_bar.setRange(0, _PROGRESS_STEPS)
        self._progress_bar.setTextVisible(False)
        layout.addWidget(self._progress_bar)

        self._remaining_label = QLabel(f"{int(config.loop_length_s)}s")
        self._remaining_label.setObjectName("remainingLabel")
        self._remaining_label.setAlignment(Qt.AlignmentFlag.AlignCenter)
        layout.addWidget(self._remaining_label)

        self._status_label = QLabel("Click or press a key to enable sound")
        self._status_label.setObjectName("feedbackStatusLabel")
        layout.addWidget(self._status_label)

        self._loop_spin.valueChanged.connect(self._emit_config)
        self._stride_spin.valueChanged.connect(self._emit_config)
        self._mute_box.toggled.connect(self._emit_config)
        self._speech_box.toggled.connect(self._emit_config)

    def _emit_config(self, *_args) -> None:
        self._config = self._config.with_overrides(
            loop_length_s=self._loop_spin.value(),
            stride_s=self._stride_spin.value(),
            muted=self._mute_box.isChecked(),
            use_speech=self._speech_box.isChecked(),
        )
        self.config_changed.emit(self._config)

    def on_snapshot(self, event: TimerEvent) -> None:
        data = event.data or {}
        self._progress_bar.setValue(int(data.get("progress", 0.0) * _PROGRESS_STEPS))
        self._remaining_label.setText(f"{math.ceil(data.get('remaining_s', 0.0))}s")

    def on_capability(self, event: TimerEvent) -> None:
        state = (event.data or {}).get("state", "")
        messages = {
            "probing": "Enabling sound…",
            "granted": "Sound enabled",
            "degraded": "Sound unavailable on this system",
        }
        self._status_label.setText(messages.get(state, state))
