# StudentLinkDialog.py
# Modal dialog for linking a tracked face to a student

import tkinter as tk
from typing import List, Optional

import cv2
import numpy as np
from PIL import Image, ImageTk


class StudentLinkDialog(tk.Toplevel):
    """
    Modal dialog that links a persistent face id to a student roll number.

    Shows the face crop, the read-only persistent id and a roll number field
    (pre-filled with the current link, with the known roll numbers offered in
    a list). Result is {"action": "link", "roll_number", "replace_existing"},
    {"action": "unlink"}, or None if cancelled.
    """

    def __init__(
        self,
        parent,
        persistent_id: int,
        face_thumbnail: Optional[np.ndarray],
        roll_numbers: List[str],
        current_roll_number: Optional[str] = None,
    ):
        super().__init__(parent)
        self.title("Link Face to Student")
        self.result = None
        self._roll_numbers = set(roll_numbers)

        self.transient(parent)
        self.grab_set()
        self.resizable(False, False)

        body = tk.Frame(self, padx=15, pady=15)
        body.pack(fill=tk.BOTH, expand=True)

        self.thumbnail_label = tk.Label(body)
        self.thumbnail_label.pack(pady=(0, 10))
        self._set_thumbnail(face_thumbnail)

        tk.Label(body, text=f"Face ID: {persistent_id}", anchor="w").pack(fill=tk.X)

        row = tk.Frame(body)
        row.pack(fill=tk.X, pady=5)
        tk.Label(row, text="Roll No:", width=8, anchor="w").pack(side=tk.LEFT)
        self.roll_var = tk.StringVar(value=current_roll_number or "")
        self.roll_entry = tk.Entry(row, width=25, textvariable=self.roll_var)
        self.roll_entry.pack(side=tk.LEFT)

        if roll_numbers:
            self.roll_list = tk.Listbox(body, height=min(6, len(roll_numbers)))
            for rn in sorted(roll_numbers):
                self.roll_list.insert(tk.END, rn)
            self.roll_list.bind("<<ListboxSelect>>", self._on_pick)
            self.roll_list.pack(fill=tk.X, pady=5)

        self.replace_var = tk.BooleanVar(value=False)
        tk.Checkbutton(
            body, text="Replace this student's older face links", variable=self.replace_var
        ).pack(anchor="w")

        self.validation_label = tk.Label(body, text="", fg="red")
        self.validation_label.pack(fill=tk.X, pady=5)

        buttons = tk.Frame(body)
        buttons.pack(fill=tk.X, pady=(10, 0))
        tk.Button(buttons, text="Unlink", command=self._on_unlink, width=10).pack(side=tk.LEFT)
        tk.Button(buttons, text="Link", command=self._on_link, width=8).pack(side=tk.RIGHT, padx=(5, 0))
        tk.Button(buttons, text="Cancel", command=self._on_cancel, width=8).pack(side=tk.RIGHT)

        self.protocol("WM_DELETE_WINDOW", self._on_cancel)
        self.roll_entry.bind("<Return>", lambda e: self._on_link())
        self.bind("<Escape>", lambda e: self._on_cancel())
        self.roll_entry.focus_set()

        self.update_idletasks()
        if parent is not None:
            x = parent.winfo_rootx() + parent.winfo_width() // 2 - self.winfo_width() // 2
            y = parent.winfo_rooty() + parent.winfo_height() // 2 - self.winfo_height() // 2
            self.geometry(f"+{x}+{y}")

    def _set_thumbnail(self, face_thumbnail: Optional[np.ndarray]):
        if face_thumbnail is None or face_thumbnail.size == 0:
            self.thumbnail_label.configure(text="No thumbnail\navailable", width=15, height=5)
            return
        rgb = cv2.cvtColor(face_thumbnail, cv2.COLOR_BGR2RGB)
        h, w = rgb.shape[:2]
        scale = min(150 / w, 150 / h, 1.0)
        if scale < 1.0:
            rgb = cv2.resize(rgb, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)
        self.photo_image = ImageTk.PhotoImage(image=Image.fromarray(rgb))
        self.thumbnail_label.configure(image=self.photo_image)

    def _on_pick(self, _event):
        selection = self.roll_list.curselection()
        if selection:
            self.roll_var.set(self.roll_list.get(selection[0]))

    def _on_link(self):
        roll_number = self.roll_var.get().strip()
        if not roll_number:
            self.validation_label.configure(text="Roll number cannot be empty")
            return
        if self._roll_numbers and roll_number not in self._roll_numbers:
            self.validation_label.configure(text=f"No student with roll number {roll_number}")
            return
        self.result = {
            "action": "link",
            "roll_number": roll_number,
            "replace_existing": bool(self.replace_var.get()),
        }
        self.destroy()

    def _on_unlink(self):
        self.result = {"action": "unlink"}
        self.destroy()

    def _on_cancel(self):
        self.result = None
        self.destroy()
