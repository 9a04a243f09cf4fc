from response_audio.recorder.main_recorder import run

if __name__ == "__main__":
    raise SystemExit(run())
