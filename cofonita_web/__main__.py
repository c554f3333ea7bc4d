from cofonita_web.main import run

run()
