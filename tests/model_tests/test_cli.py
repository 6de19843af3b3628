import json

from click.testing import CliRunner

from pynetmeter.main import cli, meters
from pynetmeter.meter import default_latency_options, default_throughput_options
from pynetmeter.models.latency import LatencyMeter
from pynetmeter.models.throughput import ThroughputMeter
from tests.helpers import client_when_ready, free_port, loopback_options


def extract_json(output: str) -> dict:
    """Вытащить из вывода команды JSON-документ результата."""
    start = output.index('{\n')
    end = output.index('\n}', start) + 2
    return json.loads(output[start:end])


def test_list_meters():
    result = CliRunner().invoke(cli, ['list'])
    assert result.exit_code == 0
    assert "* latency" in result.output
    assert "* throughput" in result.output
    assert set(meters) == {'latency', 'throughput'}


def test_run_latency_client_json(executor, tcp_listener, quiet_logger):
    options = loopback_options(default_latency_options(), tcp_listener,
                               numMsg=50)
    server = LatencyMeter(options, logger=quiet_logger())
    future = executor.submit(server.server, tcp_listener)

    result = CliRunner().invoke(cli, [
        'run', 'latency', '-c', '--addr', options.address, '-n', '50', '--json'
    ])
    future.result(timeout=30)

    assert result.exit_code == 0, result.output
    data = extract_json(result.output)
    assert data['numPings'] == 100
    assert data['avgLatency'] == data['elapsedTime'] // 100


def test_run_throughput_client_table(executor, tcp_listener, quiet_logger):
    options = loopback_options(default_throughput_options(), tcp_listener,
                               msgSize=1024, numMsg=100)
    server = ThroughputMeter(options, logger=quiet_logger())
    future = executor.submit(server.server, tcp_listener)

    result = CliRunner().invoke(cli, [
        'run', 'throughput', '-c', '-a', options.address,
        '-s', '1024', '-n', '100',
    ])
    future.result(timeout=30)

    assert result.exit_code == 0, result.output
    assert "Результаты измерения пропускной способности" in result.output
    assert "102400" in result.output


def test_options_file_then_flags(executor, tcp_listener, quiet_logger,
                                 tmp_path):
    options = loopback_options(default_latency_options(), tcp_listener,
                               numMsg=20)
    path = tmp_path / 'lat.json'
    path.write_text(json.dumps({'numMsg': 10, 'addr': options.address}))

    server = LatencyMeter(options, logger=quiet_logger())
    future = executor.submit(server.server, tcp_listener)
    result = CliRunner().invoke(cli, [
        'run', 'latency', '-c', '-f', str(path), '-n', '20', '--json'
    ])
    future.result(timeout=30)

    assert result.exit_code == 0, result.output
    assert extract_json(result.output)['numPings'] == 40


def test_save_results(executor, tcp_listener, quiet_logger, tmp_path,
                      monkeypatch):
    monkeypatch.chdir(tmp_path)
    options = loopback_options(default_latency_options(), tcp_listener,
                               numMsg=5)
    server = LatencyMeter(options, logger=quiet_logger())
    future = executor.submit(server.server, tcp_listener)
    result = CliRunner().invoke(cli, [
        'run', 'latency', '-c', '-a', options.address, '-n', '5', '--save'
    ])
    future.result(timeout=30)

    assert result.exit_code == 0, result.output
    saved = list((tmp_path / 'results').glob('latency_res-*.json'))
    assert len(saved) == 1
    data = json.loads(saved[0].read_text())
    assert data['options']['numMsg'] == 5
    assert data['result']['numPings'] == 10


def test_client_fails_without_server():
    result = CliRunner().invoke(cli, [
        'run', 'latency', '-c', '-a', f'127.0.0.1:{free_port()}'
    ])
    assert result.exit_code == 1


def test_malformed_options_file(tmp_path):
    path = tmp_path / 'bad.json'
    path.write_text('{"msgSize": ')
    result = CliRunner().invoke(cli, ['run', 'latency', '-c', '-f', str(path)])
    assert result.exit_code == 2
    assert "malformed options JSON" in result.output


def test_invalid_address_flag():
    result = CliRunner().invoke(cli, ['run', 'latency', '-c', '-a', 'nohost'])
    assert result.exit_code == 2
    assert "missing port" in result.output


def test_root_command_runs_selected_client(executor, tcp_listener,
                                           quiet_logger, tmp_path):
    options = loopback_options(default_latency_options(), tcp_listener,
                               numMsg=10)
    path = tmp_path / 'lat.json'
    path.write_text(options.to_json())

    server = LatencyMeter(options, logger=quiet_logger())
    future = executor.submit(server.server, tcp_listener)
    result = CliRunner().invoke(cli, ['-c', '--lat-options', str(path)])
    future.result(timeout=30)

    assert result.exit_code == 0, result.output
    assert "Результаты измерения задержки" in result.output
    assert "пропускной способности" not in result.output


def test_root_command_fails_without_servers(tmp_path):
    lat = tmp_path / 'lat.json'
    lat.write_text(json.dumps({'addr': f'127.0.0.1:{free_port()}'}))
    tp = tmp_path / 'tp.json'
    tp.write_text(json.dumps({'addr': f'127.0.0.1:{free_port()}'}))
    result = CliRunner().invoke(
        cli, ['-c', '--lat-options', str(lat), '--tp-options', str(tp)]
    )
    assert result.exit_code == 1


def test_root_command_runs_both_servers(executor, tmp_path, quiet_logger):
    lat = default_latency_options().overlay({
        'addr': f'127.0.0.1:{free_port()}', 'numMsg': 20
    })
    tp = default_throughput_options().overlay({
        'addr': f'127.0.0.1:{free_port()}', 'msgSize': 4096, 'numMsg': 50
    })
    lat_path = tmp_path / 'lat.json'
    lat_path.write_text(lat.to_json())
    tp_path = tmp_path / 'tp.json'
    tp_path.write_text(tp.to_json())

    future = executor.submit(CliRunner().invoke, cli, [
        '--lat-options', str(lat_path), '--tp-options', str(tp_path)
    ])
    # Клиент пропускной способности идет первым: оба сервера ждут
    # подключения одновременно
    tp_result = client_when_ready(
        ThroughputMeter(tp, logger=quiet_logger('test-tp-client'))
    )
    lat_result = client_when_ready(
        LatencyMeter(lat, logger=quiet_logger('test-lat-client'))
    )
    result = future.result(timeout=60)

    assert result.exit_code == 0, result.output
    assert tp_result.total_data == 50 * 4096
    assert lat_result.num_pings == 40


def test_log_file_option(executor, tcp_listener, quiet_logger, tmp_path):
    options = loopback_options(default_latency_options(), tcp_listener,
                               numMsg=5)
    server = LatencyMeter(options, logger=quiet_logger())
    future = executor.submit(server.server, tcp_listener)
    result = CliRunner().invoke(cli, [
        'run', 'latency', '-c', '-a', options.address, '-n', '5',
        '--log-file', str(tmp_path / 'logs' / 'lat.log'),
    ])
    future.result(timeout=30)

    assert result.exit_code == 0, result.output
    logs = list((tmp_path / 'logs').glob('lat_*.log'))
    assert len(logs) == 1
    content = logs[0].read_text()
    assert "latency client connected to" in content
    assert "latency client done" in content
