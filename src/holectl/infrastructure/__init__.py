"""Infrastructure layer — file I/O, subprocess, DNS and templating adapters."""
