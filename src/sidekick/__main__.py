from sidekick.main import run

run()
