"""
View Layer - Tkinter widgets
============================

Widgets and dialogs only; every decision is made by the presenter.
Communicates with the Presenter through the on_* callbacks.

Two panels share the main window:
- start panel: handle, interval, channel, log path, Start
- scan panel: counters, show-all toggle, kill event feed, Stop/Export
"""

# ============================================================================
# MODULE OVERVIEW
# ============================================================================
# Purpose:
#   view.py
#
# Connected modules (direct imports):
#   error_handling (severity only), theme
# ============================================================================

import tkinter as tk
import tkinter.font as tkfont
from tkinter import ttk
from tkinter import filedialog, messagebox
from typing import Optional, Dict, Any, Callable, List

from error_handling import ErrorSeverity
from theme import resolve_color, DEFAULT_COLORS

# Separator between two kill event blocks in the feed
EVENT_SEPARATOR = "\n" + "-" * 44 + "\n"

PATH_FIELDS = [
    ("path_live", "LIVE"),
    ("path_ptu", "PTU"),
    ("path_eptu", "EPTU"),
    ("path_hotfix", "HOTFIX"),
    ("path_tech_preview", "TECH-PREVIEW"),
    ("path_custom", "Custom"),
]


# ============================================================================
# CLASSES
# ============================================================================

class KillMonitorView:
    """Main window: start panel, scan panel and dialogs"""

    def __init__(self, root: tk.Tk, config):
        """
        Initialize the view

        Args:
            root: Tkinter root window
            config: AppConfig (name, version, UI settings)
        """
        self.root = root
        self.config = config

        # Event callbacks (set by presenter)
        self.on_start: Optional[Callable] = None
        self.on_stop: Optional[Callable] = None
        self.on_show_all_changed: Optional[Callable[[bool], None]] = None
        self.on_channel_changed: Optional[Callable[[str], None]] = None
        self.on_settings: Optional[Callable] = None
        self.on_export: Optional[Callable] = None
        self.on_about: Optional[Callable] = None

        # Widget references
        self.widgets = {}

        self._setup_colors()
        self._setup_fonts()

        self._event_count = 0

    def _setup_colors(self):
        """Resolve the palette (config overrides on top of the theme)"""
        overrides = dict(getattr(self.config.ui, "colors", {}) or {})
        self.colors = {key: resolve_color(overrides, key) for key in DEFAULT_COLORS}

    def _setup_fonts(self):
        """Central font setup (UI uses sans-serif, the event feed uses monospace)."""
        try:
            fam = set(tkfont.families(self.root))
        except tk.TclError:
            fam = set()

        def _pick(*names: str, fallback: str = "Segoe UI") -> str:
            for n in names:
                if n in fam:
                    return n
            return fallback

        title_family = _pick("Bahnschrift", "Segoe UI Variable Display", "Segoe UI", "Arial")

        self.fonts = {
            "TITLE": (title_family, 16, "bold"),
            "SECTION": ("Segoe UI", 10, "bold"),
            "UI": ("Segoe UI", 9),
            "UI_BOLD": ("Segoe UI", 9, "bold"),
            "UI_SMALL": ("Segoe UI", 8),
            "COUNTER": (title_family, 14, "bold"),
            "MONO": ("Consolas", 9),
        }

    def _style_button(self, btn: tk.Widget, *, accent: bool = False, danger: bool = False):
        """Flat button; accent for primary actions, danger for Stop."""
        if accent:
            bg = self.colors["ORANGE"]
        elif danger:
            bg = self.colors["RED"]
        else:
            bg = self.colors["BG_PANEL"]
        fg = "#000000" if (accent or danger) else self.colors["TEXT"]

        btn.configure(
            font=self.fonts["UI"],
            bg=bg,
            fg=fg,
            activebackground=bg,
            activeforeground=fg,
            relief="flat",
            bd=0,
            highlightthickness=1,
            highlightbackground=self.colors["BORDER_INNER"],
            highlightcolor=self.colors["ORANGE_DIM"],
            padx=10,
            pady=3,
            cursor="hand2",
        )

        # Subtle hover affordance for plain buttons
        if not (accent or danger):
            btn.bind("<Enter>", lambda _e: btn.configure(highlightbackground=self.colors["BORDER_OUTER"]))
            btn.bind("<Leave>", lambda _e: btn.configure(highlightbackground=self.colors["BORDER_INNER"]))

    def _entry(self, parent: tk.Widget, variable: tk.StringVar, width: int = 28) -> tk.Entry:
        return tk.Entry(
            parent,
            textvariable=variable,
            width=width,
            font=self.fonts["MONO"],
            bg=self.colors["BG_FIELD"],
            fg=self.colors["TEXT"],
            insertbackground=self.colors["TEXT"],
            relief="solid",
            bd=1
        )

    def _label(self, parent: tk.Widget, text: str, *, muted: bool = False, font: str = "UI") -> tk.Label:
        return tk.Label(
            parent,
            text=text,
            font=self.fonts[font],
            fg=self.colors["MUTED"] if muted else self.colors["TEXT"],
            bg=self.colors["BG_PANEL"],
            anchor="w"
        )

    # ========================================================================
    # BUILD
    # ========================================================================

    def build_ui(self):
        """Create all widgets; the start panel is shown by the presenter"""
        self.root.title(f"{self.config.app_name} v{self.config.version}")
        self.root.configure(bg=self.colors["BG"])
        self.root.geometry(f"{self.config.ui.window_width}x{self.config.ui.window_height}")
        self.root.minsize(460, 420)

        self._build_header()

        body = tk.Frame(self.root, bg=self.colors["BG"])
        body.pack(fill="both", expand=True, padx=10, pady=5)
        self.widgets["body"] = body

        self._build_start_panel(body)
        self._build_scan_panel(body)
        self._build_controls()

    def _build_header(self):
        """Build header with title and status"""
        header = tk.Frame(self.root, bg=self.colors["BG_PANEL"], height=56)
        header.pack(fill="x", padx=10, pady=(10, 5))
        header.pack_propagate(False)

        title_label = tk.Label(
            header,
            text=self.config.app_name,
            font=self.fonts["TITLE"],
            fg=self.colors["ORANGE"],
            bg=self.colors["BG_PANEL"]
        )
        title_label.pack(side="left", padx=20, pady=10)

        status_frame = tk.Frame(header, bg=self.colors["BG_PANEL"])
        status_frame.pack(side="right", padx=20)

        led_canvas = tk.Canvas(status_frame, width=20, height=20, bg=self.colors["BG_PANEL"], highlightthickness=0)
        led_canvas.pack(side="left", padx=(0, 8))
        led_dot = led_canvas.create_oval(4, 4, 16, 16, fill=self.colors["LED_IDLE"], outline="")

        lbl_status = tk.Label(
            status_frame,
            text="SCAN: IDLE",
            font=self.fonts["UI_SMALL"],
            fg=self.colors["TEXT"],
            bg=self.colors["BG_PANEL"]
        )
        lbl_status.pack(side="left")

        self.widgets["header"] = header
        self.widgets["led_canvas"] = led_canvas
        self.widgets["led_dot"] = led_dot
        self.widgets["lbl_status"] = lbl_status

    def _build_start_panel(self, parent: tk.Widget):
        """Handle, interval and channel inputs"""
        panel = tk.Frame(
            parent,
            bg=self.colors["BG_PANEL"],
            highlightthickness=1,
            highlightbackground=self.colors["BORDER_OUTER"]
        )

        self._label(panel, "START SCAN", font="SECTION").grid(
            row=0, column=0, columnspan=2, sticky="w", padx=12, pady=(12, 8)
        )

        var_handle = tk.StringVar()
        var_interval = tk.StringVar()
        var_channel = tk.StringVar()

        self._label(panel, "Handle").grid(row=1, column=0, sticky="w", padx=12, pady=4)
        entry_handle = self._entry(panel, var_handle)
        entry_handle.grid(row=1, column=1, sticky="we", padx=12, pady=4)

        self._label(panel, "Interval (seconds)").grid(row=2, column=0, sticky="w", padx=12, pady=4)
        entry_interval = self._entry(panel, var_interval, width=8)
        entry_interval.grid(row=2, column=1, sticky="w", padx=12, pady=4)

        self._label(panel, "Channel").grid(row=3, column=0, sticky="w", padx=12, pady=4)
        combo_channel = ttk.Combobox(panel, textvariable=var_channel, state="readonly", width=16)
        combo_channel.grid(row=3, column=1, sticky="w", padx=12, pady=4)
        combo_channel.bind("<<ComboboxSelected>>", self._on_channel_selected)

        self._label(panel, "Game log").grid(row=4, column=0, sticky="nw", padx=12, pady=4)
        lbl_path = self._label(panel, "-", muted=True, font="UI_SMALL")
        lbl_path.configure(wraplength=340, justify="left")
        lbl_path.grid(row=4, column=1, sticky="we", padx=12, pady=4)

        btn_start = tk.Button(panel, text="Start", command=self._on_start_clicked)
        self._style_button(btn_start, accent=True)
        btn_start.grid(row=5, column=1, sticky="e", padx=12, pady=(10, 12))

        panel.columnconfigure(1, weight=1)
        entry_handle.bind("<Return>", lambda _e: self._on_start_clicked())
        entry_interval.bind("<Return>", lambda _e: self._on_start_clicked())

        self.widgets["start_panel"] = panel
        self.widgets["var_handle"] = var_handle
        self.widgets["var_interval"] = var_interval
        self.widgets["var_channel"] = var_channel
        self.widgets["entry_handle"] = entry_handle
        self.widgets["combo_channel"] = combo_channel
        self.widgets["lbl_path"] = lbl_path
        self.widgets["btn_start"] = btn_start

    def _build_scan_panel(self, parent: tk.Widget):
        """Counters, show-all toggle and the kill event feed"""
        panel = tk.Frame(
            parent,
            bg=self.colors["BG_PANEL"],
            highlightthickness=1,
            highlightbackground=self.colors["BORDER_OUTER"]
        )

        top = tk.Frame(panel, bg=self.colors["BG_PANEL"])
        top.pack(fill="x", padx=12, pady=(10, 6))

        lbl_kills = tk.Label(
            top,
            text="Kills: 0",
            font=self.fonts["COUNTER"],
            fg=self.colors["GREEN"],
            bg=self.colors["BG_PANEL"]
        )
        lbl_deaths = tk.Label(
            top,
            text="Deaths: 0",
            font=self.fonts["COUNTER"],
            fg=self.colors["RED"],
            bg=self.colors["BG_PANEL"]
        )
        lbl_deaths.pack(side="left", padx=(0, 16))

        var_show_all = tk.BooleanVar(value=False)
        chk_show_all = tk.Checkbutton(
            top,
            text="Show all",
            variable=var_show_all,
            command=self._on_show_all_toggled,
            font=self.fonts["UI"],
            fg=self.colors["TEXT"],
            bg=self.colors["BG_PANEL"],
            activebackground=self.colors["BG_PANEL"],
            activeforeground=self.colors["TEXT"],
            selectcolor=self.colors["BG_FIELD"]
        )
        chk_show_all.pack(side="right")

        feed_frame = tk.Frame(panel, bg=self.colors["BG_PANEL"])
        feed_frame.pack(fill="both", expand=True, padx=12, pady=(0, 10))

        txt_events = tk.Text(
            feed_frame,
            font=self.fonts["MONO"],
            bg=self.colors["BG_FIELD"],
            fg=self.colors["TEXT"],
            insertbackground=self.colors["TEXT"],
            relief="solid",
            bd=1,
            wrap="word",
            state="disabled"
        )
        scrollbar = tk.Scrollbar(feed_frame, command=txt_events.yview)
        txt_events.configure(yscrollcommand=scrollbar.set)
        scrollbar.pack(side="right", fill="y")
        txt_events.pack(side="left", fill="both", expand=True)

        buttons = tk.Frame(panel, bg=self.colors["BG_PANEL"])
        buttons.pack(fill="x", padx=12, pady=(0, 12))

        btn_stop = tk.Button(buttons, text="Stop", command=self._on_stop_clicked)
        self._style_button(btn_stop, danger=True)
        btn_stop.pack(side="right")

        btn_export = tk.Button(buttons, text="Export XLSX", command=self._on_export_clicked)
        self._style_button(btn_export)
        btn_export.pack(side="right", padx=(0, 8))

        self.widgets["scan_panel"] = panel
        self.widgets["lbl_kills"] = lbl_kills
        self.widgets["lbl_deaths"] = lbl_deaths
        self.widgets["var_show_all"] = var_show_all
        self.widgets["chk_show_all"] = chk_show_all
        self.widgets["txt_events"] = txt_events
        self.widgets["btn_stop"] = btn_stop
        self.widgets["btn_export"] = btn_export

    def _build_controls(self):
        """Build utility buttons"""
        control_frame = tk.Frame(self.root, bg=self.colors["BG"])
        control_frame.pack(fill="x", padx=10, pady=(0, 10))

        btn_about = tk.Button(control_frame, text="About", command=self._on_about_clicked)
        btn_about.pack(side="right", padx=5)

        btn_settings = tk.Button(control_frame, text="Settings", command=self._on_settings_clicked)
        btn_settings.pack(side="right", padx=5)

        self._style_button(btn_about)
        self._style_button(btn_settings)
        self.widgets["btn_about"] = btn_about
        self.widgets["btn_settings"] = btn_settings

    # ========================================================================
    # PANELS
    # ========================================================================

    def load_start_inputs(
        self,
        handle: str,
        interval_text: str,
        channel_labels: List[str],
        selected_label: str,
        path: str
    ):
        """Fill the start panel from the stored settings"""
        self.widgets["var_handle"].set(handle)
        self.widgets["var_interval"].set(interval_text)
        self.widgets["combo_channel"].configure(values=channel_labels)
        self.widgets["var_channel"].set(selected_label)
        self.set_path_display(path)

    def get_start_inputs(self) -> Dict[str, str]:
        return {
            "handle": self.widgets["var_handle"].get(),
            "interval": self.widgets["var_interval"].get(),
            "channel": self.widgets["var_channel"].get(),
        }

    def set_path_display(self, path: str):
        self.widgets["lbl_path"].configure(text=path or "(no path set)")

    def show_start_panel(self):
        self.widgets["scan_panel"].pack_forget()
        self.widgets["start_panel"].pack(fill="x", anchor="n")
        self.widgets["entry_handle"].focus_set()

    def show_scan_panel(self, killer_mode_active: bool, show_all: bool):
        """Switch to the scan panel; the kill counter is only shown in killer mode"""
        lbl_kills = self.widgets["lbl_kills"]
        if killer_mode_active:
            lbl_kills.pack(side="left", padx=(0, 16), before=self.widgets["lbl_deaths"])
        else:
            lbl_kills.pack_forget()

        self.widgets["var_show_all"].set(show_all)
        self.widgets["start_panel"].pack_forget()
        self.widgets["scan_panel"].pack(fill="both", expand=True)

    def set_status(self, state_text: str):
        running = state_text == "RUNNING"
        self.widgets["lbl_status"].configure(text=f"SCAN: {state_text}")
        self.widgets["led_canvas"].itemconfig(
            self.widgets["led_dot"],
            fill=self.colors["LED_ACTIVE"] if running else self.colors["LED_IDLE"]
        )

    # ========================================================================
    # EVENT FEED
    # ========================================================================

    def prepend_events(self, blocks: List[str]):
        """
        Insert formatted kill events at the top of the feed

        Args:
            blocks: Formatted events, newest first
        """
        if not blocks:
            return

        txt = self.widgets["txt_events"]
        txt.configure(state="normal")
        # Oldest first so the newest one ends up on top
        for block in reversed(blocks):
            if self._event_count:
                txt.insert("1.0", block + EVENT_SEPARATOR)
            else:
                txt.insert("1.0", block + "\n")
            self._event_count += 1
        txt.configure(state="disabled")
        txt.see("1.0")

    def clear_events(self):
        txt = self.widgets["txt_events"]
        txt.configure(state="normal")
        txt.delete("1.0", "end")
        txt.configure(state="disabled")
        self._event_count = 0

    def update_counters(self, kill_count: int, death_count: int):
        self.widgets["lbl_kills"].configure(text=f"Kills: {kill_count}")
        self.widgets["lbl_deaths"].configure(text=f"Deaths: {death_count}")

    # ========================================================================
    # ALERTS AND DIALOGS
    # ========================================================================

    def show_alert(self, severity: ErrorSeverity, header: str, message: str):
        """Show an alert box; severity selects the icon"""
        if severity in (ErrorSeverity.ERROR, ErrorSeverity.CRITICAL):
            messagebox.showerror(header, message, parent=self.root)
        elif severity is ErrorSeverity.WARNING:
            messagebox.showwarning(header, message, parent=self.root)
        else:
            messagebox.showinfo(header, message, parent=self.root)

    def show_settings_dialog(self, current: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Show the settings dialog.

        Args:
            current: path_* values plus write_to_file and killer_mode_active

        Returns:
            Dict with the same keys, or None if cancelled.
        """
        dlg = tk.Toplevel(self.root)
        dlg.title("Settings")
        dlg.configure(bg=self.colors["BG_PANEL"])
        dlg.resizable(True, False)
        dlg.minsize(620, 320)
        dlg.transient(self.root)
        dlg.grab_set()

        self.root.update_idletasks()
        x = self.root.winfo_rootx() + 60
        y = self.root.winfo_rooty() + 60

        tk.Label(
            dlg,
            text="Game log per channel",
            font=self.fonts["UI_BOLD"],
            fg=self.colors["ORANGE"],
            bg=self.colors["BG_PANEL"]
        ).pack(anchor="w", padx=12, pady=(12, 4))

        path_vars: Dict[str, tk.StringVar] = {}
        for key, label in PATH_FIELDS:
            row = tk.Frame(dlg, bg=self.colors["BG_PANEL"])
            row.pack(fill="x", padx=12, pady=2)

            tk.Label(
                row,
                text=label,
                width=14,
                anchor="w",
                font=self.fonts["UI_SMALL"],
                fg=self.colors["TEXT"],
                bg=self.colors["BG_PANEL"]
            ).pack(side="left")

            var = tk.StringVar(value=str(current.get(key) or ""))
            self._entry(row, var, width=60).pack(side="left", fill="x", expand=True)
            path_vars[key] = var

            def browse(v=var, title=label):
                chosen = filedialog.askopenfilename(
                    parent=dlg,
                    title=f"Choose game.log ({title})",
                    filetypes=[("Log files", "*.log"), ("All files", "*.*")]
                )
                if chosen:
                    v.set(chosen)

            tk.Button(
                row,
                text="Browse…",
                font=self.fonts["UI_SMALL"],
                bg=self.colors["BG_PANEL"],
                fg=self.colors["TEXT"],
                command=browse
            ).pack(side="left", padx=(8, 0))

        tk.Label(
            dlg,
            text="Options (apply to the next scan)",
            font=self.fonts["UI_BOLD"],
            fg=self.colors["ORANGE"],
            bg=self.colors["BG_PANEL"]
        ).pack(anchor="w", padx=12, pady=(12, 4))

        var_write = tk.BooleanVar(value=bool(current.get("write_to_file")))
        var_killer = tk.BooleanVar(value=bool(current.get("killer_mode_active")))
        for text, var in (
            ("Write kill events to logs/kill-events_<start>.log", var_write),
            ("Killer mode (also track kills made by your handle)", var_killer),
        ):
            tk.Checkbutton(
                dlg,
                text=text,
                variable=var,
                font=self.fonts["UI"],
                fg=self.colors["TEXT"],
                bg=self.colors["BG_PANEL"],
                activebackground=self.colors["BG_PANEL"],
                activeforeground=self.colors["TEXT"],
                selectcolor=self.colors["BG_FIELD"]
            ).pack(anchor="w", padx=12)

        btns = tk.Frame(dlg, bg=self.colors["BG_PANEL"])
        btns.pack(fill="x", padx=12, pady=12)

        result: Dict[str, Any] = {}

        def on_ok():
            for key, var in path_vars.items():
                result[key] = (var.get() or "").strip()
            result["write_to_file"] = bool(var_write.get())
            result["killer_mode_active"] = bool(var_killer.get())
            dlg.destroy()

        btn_cancel = tk.Button(btns, text="Cancel", command=dlg.destroy)
        self._style_button(btn_cancel)
        btn_cancel.pack(side="right", padx=(6, 0))

        btn_save = tk.Button(btns, text="Save", command=on_ok)
        self._style_button(btn_save, accent=True)
        btn_save.pack(side="right")

        # Size dialog to its content
        dlg.update_idletasks()
        req_w = max(620, dlg.winfo_reqwidth())
        req_h = max(320, dlg.winfo_reqheight())
        dlg.geometry(f"{req_w}x{req_h}+{x}+{y}")

        self.root.wait_window(dlg)
        return result or None

    def show_about_dialog(self, about_text: str, copy_text: str | None = None):
        """About box; copy_text adds a button that puts the diagnostics on the clipboard."""
        dlg = tk.Toplevel(self.root)
        dlg.title("About")
        dlg.configure(bg=self.colors["BG_PANEL"])
        dlg.resizable(True, True)
        dlg.minsize(560, 320)
        dlg.transient(self.root)
        dlg.grab_set()

        self.root.update_idletasks()
        x = self.root.winfo_rootx() + 90
        y = self.root.winfo_rooty() + 90
        dlg.geometry(f"600x340+{x}+{y}")

        txt = tk.Text(
            dlg,
            font=self.fonts["MONO"],
            bg=self.colors["BG_FIELD"],
            fg=self.colors["TEXT"],
            height=14,
            width=74,
            relief="solid",
            bd=1
        )
        txt.pack(fill="both", expand=True, padx=12, pady=(12, 0))
        txt.insert("1.0", about_text)
        txt.config(state="disabled")

        btns = tk.Frame(dlg, bg=self.colors["BG_PANEL"])
        btns.pack(fill="x", padx=12, pady=12)

        def copy_diag():
            try:
                self.root.clipboard_clear()
                self.root.clipboard_append(copy_text)
                messagebox.showinfo("About", "Diagnostics copied to clipboard.", parent=dlg)
            except tk.TclError:
                messagebox.showwarning("About", "Could not copy to clipboard.", parent=dlg)

        if copy_text:
            btn_copy = tk.Button(btns, text="Copy diagnostics", command=copy_diag)
            self._style_button(btn_copy)
            btn_copy.pack(side="left")

        btn_close = tk.Button(btns, text="Close", command=dlg.destroy)
        self._style_button(btn_close, accent=True)
        btn_close.pack(side="right")

        self.root.wait_window(dlg)

    # ========================================================================
    # WIDGET CALLBACKS
    # ========================================================================

    def _on_start_clicked(self):
        if self.on_start:
            self.on_start()

    def _on_stop_clicked(self):
        if self.on_stop:
            self.on_stop()

    def _on_export_clicked(self):
        if self.on_export:
            self.on_export()

    def _on_settings_clicked(self):
        if self.on_settings:
            self.on_settings()

    def _on_about_clicked(self):
        if self.on_about:
            self.on_about()

    def _on_channel_selected(self, _event=None):
        if self.on_channel_changed:
            self.on_channel_changed(self.widgets["var_channel"].get())

    def _on_show_all_toggled(self):
        if self.on_show_all_changed:
            self.on_show_all_changed(bool(self.widgets["var_show_all"].get()))
