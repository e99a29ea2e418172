from reviewgate.main import run

run()
