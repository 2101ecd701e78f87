import atexit
import logging

from flask import Flask, Response, jsonify, request
from config import Config
from services import emotion_map
from services.errors import MeditationGenerationError, SessionLoadError
from services.meditation_generator import MeditationGenerator
from services.mood_store import MoodStore
from services.openai_service import OpenAIService
from services.phase_cache import PhaseCache
from services.session_manager import COMPLETED_REDIRECT, SessionManager

logger = logging.getLogger(__name__)

CHECK_IN_REDIRECT = "/check-in"
INTENTION_REDIRECT = "/meditation/intention"


def _body():
    return request.get_json(silent=True) or {}


def _clean(value):
    return value.strip() if isinstance(value, str) else None


def create_app(config=Config, store=None, ai=None, phase_cache=None,
               sessions=None):
    """Build the Flask app. Collaborators are created from config unless given."""
    app = Flask(__name__)
    app.config.from_object(config)

    store = store or MoodStore.from_config(config)
    ai = ai or OpenAIService.from_config(config)
    phase_cache = phase_cache or PhaseCache()
    generator = MeditationGenerator(
        ai,
        store,
        match_count=config.MATCH_CHUNK_COUNT,
        phase_duration=config.GENERATED_PHASE_DURATION,
    )
    sessions = sessions or SessionManager(
        store, phase_cache, config, synthesize=ai.stream_speech
    )

    app.extensions["mood_store"] = store
    app.extensions["phase_cache"] = phase_cache
    app.extensions["sessions"] = sessions

    @app.errorhandler(SessionLoadError)
    def session_load_failed(e):
        return jsonify({"error": str(e), "redirect": e.redirect}), 409

    @app.route("/")
    def index():
        return jsonify({"name": "meditation-journey", "status": "ok"})

    # ---------- Check-in ----------

    @app.route("/api/moods")
    def moods():
        return jsonify({"moods": emotion_map.CHECK_IN_MOODS})

    @app.route("/api/check-in", methods=["POST"])
    def check_in():
        data = _body()
        user_id = _clean(data.get("user_id"))
        mood = _clean(data.get("current_emotion"))
        note = _clean(data.get("note")) or None

        if not user_id:
            return jsonify({"error": "Please sign in before checking in"}), 400
        if not mood:
            return jsonify({"error": "Please choose how you're feeling"}), 400
        if not emotion_map.is_check_in_mood(mood.lower()):
            return jsonify({"error": f"Unknown mood: {mood}"}), 400

        entry = store.create_entry(user_id, mood.lower(), note)
        if not entry:
            return jsonify({"error": "Couldn't save your check-in. Please try again."}), 500
        return jsonify(entry), 201

    # ---------- Target emotion ----------

    @app.route("/api/entries/<entry_id>/targets")
    def targets(entry_id):
        entry = store.get_entry(entry_id)
        if not entry:
            return jsonify({
                "error": "Couldn't load your check-in. Please start over.",
                "redirect": CHECK_IN_REDIRECT,
            }), 404
        current = entry.get("current_emotion")
        return jsonify({
            "entry_id": entry_id,
            "current_emotion": current,
            "selected": entry.get("target_emotion"),
            "targets": emotion_map.target_options(current),
        })

    @app.route("/api/entries/<entry_id>/target", methods=["POST"])
    def choose_target(entry_id):
        target = (_clean(_body().get("target_emotion")) or "").lower()
        if not target:
            return jsonify({"error": "Please choose where you'd like to go"}), 400

        entry = store.get_entry(entry_id)
        if not entry:
            return jsonify({
                "error": "Missing entry information. Please start over.",
                "redirect": CHECK_IN_REDIRECT,
            }), 404
        if target not in emotion_map.targets_for(entry.get("current_emotion")):
            return jsonify({"error": "Please choose one of the suggested feelings"}), 400

        updated = store.set_target_emotion(entry_id, target)
        if not updated:
            return jsonify({"error": "Something went wrong. Please try again."}), 500
        # drop phases generated for the previous target
        phase_cache.discard(entry_id)
        return jsonify(updated)

    # ---------- Generation & speech ----------

    @app.route("/api/generate", methods=["POST"])
    def generate():
        data = _body()
        entry_id = _clean(data.get("entry_id"))

        if entry_id:
            entry = store.get_entry(entry_id)
            if not entry:
                return jsonify({"error": "Mood entry not found",
                                "redirect": CHECK_IN_REDIRECT}), 404
            current = entry.get("current_emotion")
            target = entry.get("target_emotion")
            note = entry.get("note")
        else:
            current = _clean(data.get("current_emotion"))
            target = _clean(data.get("target_emotion"))
            note = _clean(data.get("note"))

        if not current or not target:
            return jsonify({"error": "current_emotion and target_emotion are required"}), 400

        try:
            phases = generator.generate(current, target, note)
        except MeditationGenerationError as e:
            return jsonify({
                "error": str(e),
                "raw": e.raw,
                "redirect": INTENTION_REDIRECT,
            }), 502
        except Exception as e:
            logger.exception("Meditation generation failed")
            return jsonify({"error": str(e)}), 500

        if entry_id:
            phase_cache.put(entry_id, phases)
        return jsonify(phases)

    @app.route("/api/tts", methods=["POST"])
    def tts():
        text = _clean(_body().get("text"))
        if not text:
            return jsonify({"error": "No text provided"}), 400

        try:
            stream = ai.stream_speech(text)
            first = next(stream, b"")
        except Exception as e:
            logger.warning("Speech synthesis failed: %s", e)
            return jsonify({"error": "Speech synthesis unavailable"}), 502

        def generate_audio():
            yield first
            yield from stream

        return Response(generate_audio(), mimetype="audio/mpeg")

    # ---------- Playback sessions ----------

    def _session(entry_id):
        engine = sessions.get(entry_id)
        if engine is None:
            raise SessionLoadError("No active meditation for this check-in")
        return engine

    @app.route("/api/sessions", methods=["POST"])
    def open_session():
        data = _body()
        engine = sessions.open(_clean(data.get("entry_id")), _clean(data.get("user_id")))
        return jsonify(engine.snapshot()), 201

    @app.route("/api/sessions/<entry_id>")
    def session_state(entry_id):
        return jsonify(_session(entry_id).snapshot())

    @app.route("/api/sessions/<entry_id>/<action>", methods=["POST"])
    def session_action(entry_id, action):
        engine = _session(entry_id)
        handlers = {
            "play": engine.play,
            "pause": engine.pause,
            "toggle": engine.toggle,
            "skip": engine.skip,
            "end": engine.end,
        }
        if action not in handlers:
            return jsonify({"error": f"Unknown action: {action}"}), 404
        handlers[action]()
        snap = engine.snapshot()
        if snap["state"] in ("completing", "completed"):
            snap["redirect"] = COMPLETED_REDIRECT
        return jsonify(snap)

    @app.route("/api/sessions/<entry_id>/narration")
    def session_narration(entry_id):
        audio = _session(entry_id).narration_audio()
        if not audio:
            return "", 204
        return Response(audio, mimetype="audio/mpeg")

    @app.route("/api/sessions/<entry_id>", methods=["DELETE"])
    def close_session(entry_id):
        closed = sessions.close(entry_id)
        return jsonify({"closed": closed})

    # ---------- Profile ----------

    @app.route("/api/history")
    def history():
        user_id = _clean(request.args.get("user_id"))
        if not user_id:
            return jsonify({"error": "user_id is required"}), 400
        return jsonify({
            "entries": store.list_entries(user_id),
            "sessions": store.list_sessions(user_id),
        })

    atexit.register(sessions.close_all)
    return app


if __name__ == "__main__":
    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app()
    app.run(
        host=Config.HOST,
        port=Config.PORT,
        debug=Config.DEBUG,
        threaded=True,
    )
