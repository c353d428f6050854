from PIL import Image, ImageTk, ImageDraw, ImageFont
import ttkbootstrap as ttk
from ttkbootstrap.constants import *
from tkinter import StringVar

from emotion_detector import SessionState
from face_locator import draw_face_boxes
from session_rater import format_stars


class EmotionGUI:
    def __init__(self, root, detector):
        self.root = root
        self.detector = detector
        self.root.title("Meeting Emotion Sense")

        # --- LAYOUT ---
        self.warning_label = ttk.Label(root, text="", bootstyle="inverse-danger", padding=6)
        self.warning_label.grid(row=0, column=0, columnspan=2, sticky='ew', padx=10)

        self.frame_video = ttk.LabelFrame(root, text="🎥 Capture", padding=10, bootstyle=PRIMARY)
        self.frame_video.grid(row=1, column=0, padx=10, pady=10)

        self.frame_tally = ttk.LabelFrame(root, text="📊 Emotions", padding=10, bootstyle=INFO)
        self.frame_tally.grid(row=1, column=1, padx=10, pady=10, sticky='n')

        self.frame_controls = ttk.Frame(root, padding=10)
        self.frame_controls.grid(row=2, column=0, columnspan=2)

        self.frame_sessions = ttk.LabelFrame(root, text="📜 Sessions", padding=10, bootstyle=SECONDARY)
        self.frame_sessions.grid(row=3, column=0, columnspan=2, padx=10, pady=10, sticky='ew')

        # --- VIDEO ---
        self.video_label = ttk.Label(self.frame_video, text="Press Start to begin recording.")
        self.video_label.pack()

        # --- TALLY ---
        self.tally_bars = {}
        self.tally_counts = {}
        color_map = {"happy": SUCCESS, "sad": WARNING, "angry": DANGER}
        for emo, color in color_map.items():
            ttk.Label(self.frame_tally, text=emo.capitalize(), width=15, anchor='w').pack(pady=2)
            progress = ttk.Progressbar(self.frame_tally, length=200, maximum=100, bootstyle=color)
            progress.pack(pady=2)
            count_label = ttk.Label(self.frame_tally, text="0")
            count_label.pack(anchor='e')
            self.tally_bars[emo] = progress
            self.tally_counts[emo] = count_label

        # --- CONTROLS ---
        ttk.Label(self.frame_controls, text="Session name:").pack(side='left', padx=5)
        self.name_var = StringVar()
        self.name_entry = ttk.Entry(self.frame_controls, textvariable=self.name_var, width=30)
        self.name_entry.pack(side='left', padx=5)

        self.start_button = ttk.Button(self.frame_controls, text="▶ Start", bootstyle=SUCCESS, command=self.start_recording)
        self.start_button.pack(side='left', padx=5)
        self.stop_button = ttk.Button(self.frame_controls, text="■ Stop", bootstyle=DANGER, command=self.stop_recording)
        self.stop_button.pack(side='left', padx=5)

        # --- SESSIONS ---
        self.tree = ttk.Treeview(self.frame_sessions, columns=("name", "happy", "sad", "angry", "rating"), show="headings", height=6)
        for col, title, width in (("name", "Name", 200), ("happy", "Happy", 70), ("sad", "Sad", 70),
                                  ("angry", "Angry", 70), ("rating", "Rating", 110)):
            self.tree.heading(col, text=title)
            self.tree.column(col, width=width)
        self.tree.pack(fill='both', expand=True)
        ttk.Button(self.frame_sessions, text="🗑️ Delete Selected", bootstyle=DANGER, command=self.delete_selected_session).pack(pady=(10, 0))

        self.populate_sessions()
        self.update_controls()

    def start_recording(self):
        self.detector.start_session(self.name_var.get())
        self.update_controls()

    def stop_recording(self):
        session = self.detector.stop_session()
        if session is not None:
            self.name_var.set("")
            self.populate_sessions()
        self.video_label.config(image='', text="Press Start to begin recording.")
        self.video_label.image = None
        self.update_controls()

    def update_controls(self):
        recording = self.detector.state is SessionState.RECORDING
        self.start_button.configure(state=DISABLED if recording else NORMAL)
        self.name_entry.configure(state=DISABLED if recording else NORMAL)
        self.stop_button.configure(state=NORMAL if recording else DISABLED)

    def populate_sessions(self):
        self.tree.delete(*self.tree.get_children())
        for item in self.detector.sessions:
            tally = item.emotion_data
            self.tree.insert("", "end", iid=str(item.id), values=(
                item.name, tally.happy, tally.sad, tally.angry, format_stars(item.rating)
            ))

    def delete_selected_session(self):
        selected = self.tree.selection()
        if not selected:
            return
        if self.detector.delete_session(int(selected[0])):
            self.populate_sessions()

    def refresh(self):
        """Called from the Tk loop: banner, live tally and preview frame."""
        self.warning_label.config(text=self.detector.warning or "")

        frame, boxes, tally = self.detector.get_latest_data()
        total = tally.total
        for emo, count in tally.to_dict().items():
            self.tally_bars[emo]['value'] = count * 100 / total if total else 0
            self.tally_counts[emo].config(text=str(count))

        if self.detector.state is not SessionState.RECORDING or frame is None:
            return
        img = Image.fromarray(draw_face_boxes(frame, boxes))

        draw = ImageDraw.Draw(img)
        try:
            font = ImageFont.truetype("arial.ttf", 24)
        except OSError:
            font = ImageFont.load_default()
        draw.rectangle((5, 5, 300, 45), fill=(0, 0, 0))
        draw.text((10, 10), f"Faces: {len(boxes)}  Detections: {total}", font=font, fill=(255, 255, 0))

        img.thumbnail((480, 480))
        photo = ImageTk.PhotoImage(img)
        self.video_label.config(image=photo)
        self.video_label.image = photo
