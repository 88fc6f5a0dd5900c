# attendance_app.py
# Main application window: camera preview, capture loop and face linking

import logging
import queue
import threading

import cv2
import tkinter as tk
from tkinter import messagebox
from PIL import Image, ImageTk

from attendance_logger import AttendanceLogger, AttendanceSink
from camera_utils import open_camera, to_pixel_box
from capture_loop import CaptureLoop
from config import CAMERA_INDEX, DATA_DIR, PREVIEW_REFRESH_MS
from detection_worker import DetectionWorker
from face_links import FaceLinkTable
from storage import JsonStore
from StudentLinkDialog import StudentLinkDialog
from student_directory import StudentDirectory
from summary import format_summary, summarize
from vision_client import VisionClient

logger = logging.getLogger(__name__)


class AttendanceApp:
    def __init__(self, root, camera_index: int = CAMERA_INDEX, detector=None):
        self.root = root
        self.root.title("Classroom Attendance")

        self.label_mode = False
        self.current_frame = None
        self.camera_index = camera_index
        self.cap = None

        # --- Core components ---
        self.store = JsonStore(root_dir=DATA_DIR)
        self.face_links = FaceLinkTable(self.store)
        self.students = StudentDirectory(self.store)
        self.sink = AttendanceSink(self.store)
        self.attendance_logger = AttendanceLogger(self.face_links, self.students, self.sink)

        self.job_queue: queue.Queue = queue.Queue(maxsize=1)
        self.result_queue: queue.Queue = queue.Queue()
        self.stop_event = threading.Event()
        self.worker = DetectionWorker(
            job_queue=self.job_queue,
            result_queue=self.result_queue,
            detector=detector or VisionClient(),
            stop_event=self.stop_event,
        )
        self.worker.start()

        self.capture = CaptureLoop(
            scheduler=self.root,
            frame_source=self._current_frame_copy,
            job_queue=self.job_queue,
            result_queue=self.result_queue,
            attendance_logger=self.attendance_logger,
            face_links=self.face_links,
            students=self.students,
        )

        # --- UI layout ---
        self.video_label = tk.Label(self.root)
        self.video_label.pack(side=tk.TOP, fill=tk.BOTH, expand=True)
        self.video_label.bind("<Button-1>", self._on_video_click)

        self.status_var = tk.StringVar(value="Camera stopped")
        tk.Label(self.root, textvariable=self.status_var, anchor="w").pack(side=tk.BOTTOM, fill=tk.X)

        bottom = tk.Frame(self.root)
        bottom.pack(side=tk.BOTTOM, fill=tk.X)

        self.camera_button = tk.Button(bottom, text="Start Camera", command=self._toggle_camera, width=14)
        self.camera_button.pack(side=tk.LEFT, padx=5, pady=5)

        self.label_mode_button = tk.Button(
            bottom, text="Label Mode: Off", command=self._toggle_label_mode, width=15
        )
        self.label_mode_button.pack(side=tk.LEFT, padx=5, pady=5)

        tk.Label(bottom, text="Subject:").pack(side=tk.LEFT, padx=(15, 2))
        self.subject_var = tk.StringVar()
        self.subject_var.trace_add("write", self._on_subject_change)
        tk.Entry(bottom, textvariable=self.subject_var, width=20).pack(side=tk.LEFT)

        self.root.protocol("WM_DELETE_WINDOW", self.on_close)
        self.update_preview()

    # ---------- Camera ----------

    def _current_frame_copy(self):
        return None if self.current_frame is None else self.current_frame.copy()

    def _toggle_camera(self):
        if self.cap is None:
            self.cap = open_camera(self.camera_index)
            if self.cap is None:
                messagebox.showerror("Camera Error", f"Could not open camera index {self.camera_index}.")
                return
            logger.info(f"Camera {self.camera_index} opened, starting analysis")
            self.capture.start()
            self.camera_button.config(text="Stop Camera")
        else:
            self.capture.stop()
            logger.info("Camera stopped")
            self.cap.release()
            self.cap = None
            self.current_frame = None
            self.camera_button.config(text="Start Camera")

    def _on_subject_change(self, *_args):
        subject = self.subject_var.get().strip()
        self.capture.subject = subject or None

    # ---------- Label Mode ----------

    def _toggle_label_mode(self):
        self.label_mode = not self.label_mode
        if self.label_mode:
            self.label_mode_button.config(text="Label Mode: On", relief=tk.SUNKEN)
        else:
            self.label_mode_button.config(text="Label Mode: Off", relief=tk.RAISED)

    def _on_video_click(self, event):
        if not self.label_mode or self.current_frame is None:
            return

        img_height, img_width = self.current_frame.shape[:2]
        offset_x = max(0, (self.video_label.winfo_width() - img_width) // 2)
        offset_y = max(0, (self.video_label.winfo_height() - img_height) // 2)
        x = event.x - offset_x
        y = event.y - offset_y

        for det in list(self.capture.last_detections):
            left, top, right, bottom = to_pixel_box(det.bounding_box, img_width, img_height)
            if left <= x <= right and top <= y <= bottom:
                crop = self.current_frame[max(0, top):max(0, bottom), max(0, left):max(0, right)]
                self._on_face_clicked(det.persistent_id, crop.copy())
                return

    def _on_face_clicked(self, persistent_id: int, face_crop):
        dialog = StudentLinkDialog(
            self.root,
            persistent_id=persistent_id,
            face_thumbnail=face_crop,
            roll_numbers=[s.roll_number for s in self.students.all()],
            current_roll_number=self.face_links.get(persistent_id),
        )
        self.root.wait_window(dialog)

        result = dialog.result
        if result is None:
            return
        if result["action"] == "link":
            self.face_links.link(
                persistent_id, result["roll_number"], replace_existing=result["replace_existing"]
            )
        elif result["action"] == "unlink":
            self.face_links.unlink(persistent_id)

    # ---------- Preview ----------

    def _draw_overlays(self, frame):
        h, w = frame.shape[:2]
        for det in self.capture.last_detections:
            left, top, right, bottom = to_pixel_box(det.bounding_box, w, h)
            if det.student is not None:
                color = (0, 255, 0)
                label = f"{det.student.name} #{det.persistent_id}"
            else:
                color = (0, 0, 255)
                label = f"#{det.persistent_id}"
            label += f" {det.emotion.value}"

            cv2.rectangle(frame, (left, top), (right, bottom), color, 2)
            if self.label_mode:
                cv2.rectangle(frame, (left - 2, top - 2), (right + 2, bottom + 2), (255, 255, 0), 2)
            cv2.putText(frame, label, (left + 6, max(20, top - 8)),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.7, color, 2)

    def _status_text(self) -> str:
        if self.cap is None:
            return "Camera stopped"
        if self.capture.paused_for_rate_limit:
            return "Rate limited by the AI service, analysis paused"
        if self.capture.error is not None:
            return f"{self.capture.error.title}: {self.capture.error.message}"
        return format_summary(summarize(self.capture.last_detections, self.capture.last_hands))

    def update_preview(self):
        if self.cap is not None:
            success, frame = self.cap.read()
            if success:
                self.current_frame = frame.copy()
                self._draw_overlays(frame)
                img = Image.fromarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
                imgtk = ImageTk.PhotoImage(image=img)
                # Keep a reference to avoid garbage collection
                self.video_label.imgtk = imgtk
                self.video_label.configure(image=imgtk)

        self.status_var.set(self._status_text())
        self.root.after(PREVIEW_REFRESH_MS, self.update_preview)

    def on_close(self):
        self.capture.stop()
        if self.cap is not None:
            self.cap.release()
        self.worker.stop()
        self.worker.join(timeout=2)
        self.root.destroy()
