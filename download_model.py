# download_model.py
"""Download the Silero VAD model used by the segmenter.

Saves the ONNX model to models/silero_vad/silero_vad.onnx (the default
modelPath in config/vad_config.json).
"""

import shutil
from pathlib import Path

from huggingface_hub import hf_hub_download

MODELS_DIR = Path("./models/silero_vad")
MODEL_FILE = "silero_vad.onnx"


def download_silero_vad(models_dir: Path = MODELS_DIR) -> Path:
    """Download Silero VAD ONNX model from HuggingFace.

    Returns:
        Path of the local model file
    """
    print("\n=== Downloading Silero VAD model ===")

    model_path = models_dir / MODEL_FILE
    models_dir.mkdir(parents=True, exist_ok=True)

    if model_path.exists():
        print(f"Model already exists at {model_path}")
        print(f"Size: {model_path.stat().st_size / 1024:.1f} KB")
        return model_path

    print("Downloading from HuggingFace: onnx-community/silero-vad")
    print(f"Saving to: {model_path}")

    try:
        downloaded_path = hf_hub_download(
            repo_id="onnx-community/silero-vad",
            filename="onnx/model.onnx",
            cache_dir=models_dir
        )
        shutil.copy(downloaded_path, model_path)

        print("Download complete!")
        print(f"Size: {model_path.stat().st_size / 1024:.1f} KB")
    except Exception as e:
        print(f"Download failed: {e}")
        if model_path.exists():
            model_path.unlink()  # Clean up partial download
        raise

    return model_path


if __name__ == "__main__":
    download_silero_vad()
