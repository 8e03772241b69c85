"""Release services: version policies, archiving, signing, upload and feed writing."""
