"""Orchestrator package - coordinates upload workflows."""
from .core import UploadOrchestrator, upload_directory, upload_file
from .folder_upload import FolderUploadProcess

__all__ = ["UploadOrchestrator", "FolderUploadProcess", "upload_file", "upload_directory"]
