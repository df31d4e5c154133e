from jobspine.cli.app import app

app()
